import logging
import sys

from flask_migrate import upgrade

from schoolms.app import create_app


def setup_logging():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )
    return logging.getLogger(__name__)


def init_database(app=None):
    """Initialize database and run migrations."""
    logger = setup_logging()
    app = app or create_app()

    with app.app_context():
        try:
            logger.info("Running database migrations...")
            upgrade()
            logger.info("Migrations completed successfully")
            return True
        except Exception as e:
            logger.error(f"Database initialization failed: {str(e)}", exc_info=True)
            return False


def main():
    """Main function to initialize the database."""
    logger = setup_logging()
    logger.info("Starting database initialization...")

    if init_database():
        logger.info("Database initialization completed successfully!")
    else:
        logger.error("Database initialization failed!")
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
