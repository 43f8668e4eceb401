"""
Route blueprints registration.
"""
from . import workflows


def register_blueprints(app, workflow_executor, execution_manager):
    """Register all route blueprints with the Flask app."""
    workflows_bp = workflows.init_routes(workflow_executor, execution_manager)
    app.register_blueprint(workflows_bp)
