from __future__ import annotations

from . import errors as _errors
from . import utils as _utils
from . import normalize as _normalize
from . import metrics as _metrics
from . import dcf as _dcf
from . import lbo as _lbo
from . import sensitivity as _sensitivity
from . import report as _report
from . import orchestrator as _orchestrator
from . import plots as _plots

__version__ = "0.1.0"

__all__ = []

for _mod in (
    _errors,
    _utils,
    _normalize,
    _metrics,
    _dcf,
    _lbo,
    _sensitivity,
    _report,
    _orchestrator,
    _plots,
):
    for _name in dir(_mod):
        if _name.startswith("__"):
            continue
        if _name in globals():
            continue
        globals()[_name] = getattr(_mod, _name)
        __all__.append(_name)
