import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from models.product import Product
from services.exceptions import PersistenceError

logger = logging.getLogger(__name__)


class ChunkWriter:
    """Persists one chunk of products per transaction."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def write(self, products: list[Product]) -> int:
        if not products:
            return 0

        session = self.session_factory()
        # sqlite3 raises OverflowError for out-of-range integers without wrapping it
        try:
            with session.begin():
                session.add_all(products)
        except (SQLAlchemyError, OverflowError) as exc:
            logger.warning("Chunk of %s products rolled back: %s", len(products), exc)
            raise PersistenceError(f"Failed to save {len(products)} product(s): {exc}") from exc
        finally:
            session.close()

        logger.info("Saved %s products", len(products))
        return len(products)
