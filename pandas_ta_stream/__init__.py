# -*- coding: utf-8 -*-
from importlib.metadata import PackageNotFoundError, version as _version

try:
    version = _version("pandas-ta-stream")
except PackageNotFoundError:
    version = "0.0.0"

from pandas_ta_stream.stream import *
from pandas_ta_stream.stream import __all__ as stream_all

__all__ = ["version"] + stream_all
