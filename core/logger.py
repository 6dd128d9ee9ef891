import logging, sys
from core.config import settings

def get_logger(name=__name__):
    logging.basicConfig(stream=sys.stdout, level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(message)s")
    return logging.getLogger(name)

logger = get_logger("newsletter")
