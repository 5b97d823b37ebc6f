import logging
import time

import uvicorn
from sqlalchemy import text

from netlogs.core.config import settings
from netlogs.core.database import SessionLocal, engine
from netlogs.core.logging_config import configure_logging
from netlogs.models.base import Base


def wait_for_db(timeout=60):
    start_time = time.time()
    while time.time() - start_time < timeout:
        session = SessionLocal()
        try:
            session.execute(text('SELECT 1'))
            return True
        except Exception as e:
            logging.warning(f"Database not ready yet: {e}")
            time.sleep(2)
        finally:
            session.close()
    return False


def main():
    configure_logging()
    if not wait_for_db():
        logging.error("Database unreachable, giving up")
        raise SystemExit(1)
    Base.metadata.create_all(bind=engine)
    logging.info(f"Schema ready at {engine.url.render_as_string(hide_password=True)}")

    from netlogs.api.server import app
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_config=None)


if __name__ == '__main__':
    main()
