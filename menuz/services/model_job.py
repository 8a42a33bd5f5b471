"""
ModelJob record and its enumerations.

The JSON shape (camelCase) is what the API returns and what the local
store persists; ``from_row`` adapts a PostgreSQL row (snake_case).
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional


class JobStatus:
    """Valid job statuses."""
    ENVIADO = "enviado"
    TRIAGEM = "triagem"
    PROCESSANDO = "processando"
    REVISAO = "revisao"
    PUBLICADO = "publicado"
    ERRO = "erro"

    ALL = (ENVIADO, TRIAGEM, PROCESSANDO, REVISAO, PUBLICADO, ERRO)


class JobProvider:
    """Valid job providers."""
    MESHY = "meshy"
    MANUAL = "manual"

    ALL = (MESHY, MANUAL)


class SourceType:
    """Where the reference imagery came from."""
    SCANNER = "scanner"
    UPLOAD = "upload"
    API = "api"

    ALL = (SCANNER, UPLOAD, API)


# providerStatus markers written when the pipeline itself fails
PROVIDER_STATUS_SUBMITTED = "SUBMITTED"
PROVIDER_STATUS_ERROR_ON_START = "ERROR_ON_START"
PROVIDER_STATUS_ERROR_ON_SYNC = "ERROR_ON_SYNC"

NOTES_MAX_CHARS = 500


@dataclass
class ModelJob:
    id: str
    restaurantId: str
    itemId: str
    sourceType: str = SourceType.UPLOAD
    provider: str = JobProvider.MANUAL
    aiModel: str = ""
    autoMode: bool = False
    status: str = JobStatus.ENVIADO
    notes: str = ""
    modelGlb: str = ""
    modelUsdz: str = ""
    referenceImages: List[str] = field(default_factory=list)
    providerTaskId: str = ""
    providerTaskEndpoint: str = ""
    providerStatus: str = ""
    createdAt: str = ""
    updatedAt: str = ""
    createdBy: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["referenceImages"] = list(self.referenceImages)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelJob":
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in (data or {}).items() if k in known}
        job = cls(**kwargs)
        job.referenceImages = [str(x) for x in (job.referenceImages or []) if x]
        job.autoMode = bool(job.autoMode)
        for name in ("aiModel", "notes", "modelGlb", "modelUsdz", "providerTaskId",
                     "providerTaskEndpoint", "providerStatus", "createdBy"):
            if getattr(job, name) is None:
                setattr(job, name, "")
        return job

    @classmethod
    def from_row(cls, row: Optional[Dict[str, Any]]) -> Optional["ModelJob"]:
        if not row:
            return None
        refs = row.get("reference_images") or []
        if isinstance(refs, str):
            refs = json.loads(refs or "[]")
        return cls.from_dict({
            "id": row["id"],
            "restaurantId": row["restaurant_id"],
            "itemId": row["item_id"],
            "sourceType": row.get("source_type"),
            "provider": row.get("provider"),
            "aiModel": row.get("ai_model"),
            "autoMode": row.get("auto_mode"),
            "status": row.get("status"),
            "notes": row.get("notes"),
            "modelGlb": row.get("model_glb"),
            "modelUsdz": row.get("model_usdz"),
            "referenceImages": refs,
            "providerTaskId": row.get("provider_task_id"),
            "providerTaskEndpoint": row.get("provider_task_endpoint"),
            "providerStatus": row.get("provider_status"),
            "createdAt": row.get("created_at"),
            "updatedAt": row.get("updated_at"),
            "createdBy": row.get("created_by"),
        })

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "restaurant_id": self.restaurantId,
            "item_id": self.itemId,
            "source_type": self.sourceType,
            "provider": self.provider,
            "ai_model": self.aiModel,
            "auto_mode": self.autoMode,
            "status": self.status,
            "notes": self.notes,
            "model_glb": self.modelGlb,
            "model_usdz": self.modelUsdz,
            "reference_images": json.dumps(self.referenceImages),
            "provider_task_id": self.providerTaskId,
            "provider_task_endpoint": self.providerTaskEndpoint,
            "provider_status": self.providerStatus,
            "created_at": self.createdAt,
            "updated_at": self.updatedAt,
            "created_by": self.createdBy,
        }
