"""
Flask Exam Monitoring Application Factory
"""
import logging
import os
from flask import Flask, jsonify
from flask_cors import CORS
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()

logger = logging.getLogger(__name__)


def create_app(test_config=None):
    """Create and configure the Flask application"""
    app = Flask(__name__)

    # Configuration
    app.config['SECRET_KEY'] = os.getenv('SECRET_KEY', 'dev-secret-key')

    database_url = os.getenv('DATABASE_URL', 'sqlite:///exam_monitor.db')
    app.config['SQLALCHEMY_DATABASE_URI'] = database_url
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    if database_url.startswith('postgresql'):
        app.config['SQLALCHEMY_ENGINE_OPTIONS'] = {
            'pool_pre_ping': True,
            'pool_recycle': 300,
        }

    # Exam scheduling settings
    app.config['EXAM_TIMEZONE'] = os.getenv('EXAM_TIMEZONE', 'Asia/Jerusalem')
    app.config['EXAM_WINDOW_MINUTES'] = int(os.getenv('EXAM_WINDOW_MINUTES', '30'))
    app.config['CORS_ORIGINS'] = os.getenv('CORS_ORIGINS', '*')

    if test_config:
        app.config.update(test_config)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    CORS(app, resources={r"/api/*": {"origins": app.config['CORS_ORIGINS']}})

    # Register blueprints
    from exam_monitor.routes.exams import exams_bp
    from exam_monitor.routes.attendance import attendance_bp
    from exam_monitor.routes.reporting import reporting_bp
    from exam_monitor.routes.users import users_bp
    from exam_monitor.routes.messages import messages_bp
    from exam_monitor.routes.admin import admin_bp

    app.register_blueprint(exams_bp)
    app.register_blueprint(attendance_bp)
    app.register_blueprint(reporting_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(messages_bp)
    app.register_blueprint(admin_bp)

    from exam_monitor.errors import ExamMonitorError

    @app.errorhandler(ExamMonitorError)
    def handle_exam_monitor_error(error):
        return jsonify(error.to_dict()), error.status_code

    # Health check endpoint
    @app.route('/health')
    def health():
        return {'status': 'healthy', 'service': 'exam-monitor'}

    # Import models for table creation
    from exam_monitor.models import User, Exam, ExamMember, Attendance, Report, Communication, MessageRead, AuditLog  # noqa: F401

    # Create tables
    with app.app_context():
        db.create_all()

    logger.info(f"[App] Database: {database_url.split('@')[-1]}")

    return app
