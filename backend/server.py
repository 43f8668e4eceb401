import atexit
import logging
import os
from flask import Flask
from flask_cors import CORS

from app.middleware import register_error_handlers
from app.routes import register_blueprints
from app.services import BsddClient, IdsValidator
from utils.async_helpers import shutdown_thread_pools
from utils.logging_utils import setup_logging
from database import ExecutionManager, ModelRepository
from workflow_executor import WorkflowExecutor
from config import SERVER_HOST, SERVER_PORT

setup_logging()
logger = logging.getLogger(__name__)


def create_app(execution_manager=None, model_loader=None, spec_validator=None, classifier=None):
    """
    Build the Flask application.

    Collaborators default to the DuckDB-backed stores, the IDS validator and
    the bSDD client; pass replacements to run against other backends.
    """
    app = Flask(__name__)
    CORS(app)

    register_error_handlers(app)

    execution_manager = execution_manager or ExecutionManager()
    workflow_executor = WorkflowExecutor(
        execution_manager,
        model_loader=model_loader or ModelRepository(),
        spec_validator=spec_validator or IdsValidator(),
        classifier=classifier or BsddClient(),
    )
    app.extensions['workflow_executor'] = workflow_executor

    register_blueprints(app, workflow_executor, execution_manager)
    return app


atexit.register(shutdown_thread_pools)


if __name__ == '__main__':
    app = create_app()
    flask_debug = os.environ.get("FLASK_DEBUG", "0") == "1"
    logger.info("Workflow server listening on http://%s:%d", SERVER_HOST, SERVER_PORT)
    app.run(debug=flask_debug, host=SERVER_HOST, port=SERVER_PORT)
