"""Entity merge engine, aggregate and persisted-record codec."""

from chatctx.entities.aggregate import AccumulatedEntities
from chatctx.entities.normalize import NormalizationConfig, normalize
from chatctx.entities.types import EntityValue, MergeContext

__all__ = ["AccumulatedEntities", "EntityValue", "MergeContext", "NormalizationConfig", "normalize"]
