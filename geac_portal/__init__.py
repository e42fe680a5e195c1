import logging
from flask import Flask
from . import config

app = Flask(__name__)
app.secret_key = config.SECRET_KEY


def configure_logging(level=config.LOG_LEVEL):
    """Root logger format and level, set once when the app is created."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )


configure_logging()

from .util import register_template_filters
register_template_filters(app)

from .errors import register_error_handlers
register_error_handlers(app)

from . import user
from . import events
from . import analytics
