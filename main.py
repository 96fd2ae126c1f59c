from dashboard_builder.config import Settings
from dashboard_builder.log import configure_logging
from dashboard_builder.startup import run

settings = Settings.from_env()
configure_logging(settings.log_level)

run(settings)
