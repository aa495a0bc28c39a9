# controllers/errors.py
import logging
from contextlib import contextmanager

from fastapi import HTTPException

from common.session_store import ConcurrentUpdateError
from data_processing.validators import InvariantError, NotFoundError

logger = logging.getLogger(__name__)


@contextmanager
def domain_errors():
    """
    Turn store/validation errors raised inside a route into HTTPException
    with detail={"code", "message"}: 404 unknown id, 400 invariant, 409 conflict.
    """
    try:
        yield
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail={"code": e.code, "message": str(e)})
    except InvariantError as e:
        logger.info("rejected: %s (%s)", e, e.code)
        raise HTTPException(status_code=400, detail={"code": e.code, "message": str(e)})
    except ConcurrentUpdateError as e:
        logger.warning("gave up on concurrent update of session %s", e.session_id)
        raise HTTPException(status_code=409, detail={"code": "CONCURRENT_UPDATE", "message": str(e)})
