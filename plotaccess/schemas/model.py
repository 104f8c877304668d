from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class LayerModel(BaseModel):
    id: str
    type: str
    data: Any
    selectors: Any
    title: Optional[str] = None
    axes: Optional[Dict[str, Optional[str]]] = None
    orientation: Optional[str] = None


class PanelModel(BaseModel):
    id: str
    layers: List[LayerModel]


class AccessibilityModel(BaseModel):
    id: str
    panels: List[List[Optional[PanelModel]]]


class SpecRequest(BaseModel):
    spec: Dict[str, Any] = Field(..., description="Declarative plot specification; data given as records or columns.")


class ScriptRequest(BaseModel):
    script: str = Field(..., description="Drawing script using the immediate-mode drawing functions.")


class ModelResponse(BaseModel):
    model: AccessibilityModel
    svg: List[str]
    audit_path: Optional[str] = Field(None, description="Filesystem path to persisted artifacts.")
