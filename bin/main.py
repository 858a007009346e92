#!/usr/bin/env python

import os
from pathlib import Path

from libfattura.app import app

LIBFATTURA_APP_HOME = Path(__file__).parent.parent.resolve().absolute()

os.environ.setdefault("LIBFATTURA_CONFIG_FILE", str(LIBFATTURA_APP_HOME / "conf/config.toml"))
os.environ.setdefault("LIBFATTURA_LOGGING_CONFIG_FILE", str(LIBFATTURA_APP_HOME / "conf/logging.json"))

if __name__ == "__main__":
    app()
