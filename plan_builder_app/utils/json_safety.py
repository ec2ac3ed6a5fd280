import json
import math
from typing import Any

import numpy as np
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class SafeJSONResponse(JSONResponse):
    """JSONResponse that renders engine output: NaN/Infinity -> null, numpy and pydantic values unwrapped."""

    def render(self, content: Any) -> bytes:
        return json.dumps(
            sanitize_floats(content),
            ensure_ascii=False,
            allow_nan=False,
        ).encode("utf-8")


def sanitize_floats(obj):
    """Recursively convert engine results into plain JSON-safe values."""
    if isinstance(obj, BaseModel):
        return sanitize_floats(obj.model_dump())
    if isinstance(obj, np.generic):
        obj = obj.item()
    if isinstance(obj, np.ndarray):
        return [sanitize_floats(v) for v in obj.tolist()]
    if isinstance(obj, float):
        if math.isnan(obj) or math.isinf(obj):
            return None
        return obj
    if isinstance(obj, dict):
        return {str(k): sanitize_floats(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [sanitize_floats(v) for v in obj]
    return obj
