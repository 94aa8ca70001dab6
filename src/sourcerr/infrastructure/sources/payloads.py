"""Wire payloads of every stream source, as one tagged union.

Validation happens here; past ``normalizers.normalize`` nothing inspects
raw field presence again.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

log = structlog.get_logger(__name__)


class BehaviorHints(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    binge_group: str | None = Field(default=None, alias="bingeGroup")
    cached: bool | None = None
    filename: str | None = None
    video_size: int | None = Field(default=None, alias="videoSize")


class WireStream(BaseModel):
    """One entry of a ``{"streams": [...]}`` response."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str | None = None
    title: str | None = None
    description: str | None = None
    info_hash: str | None = Field(default=None, alias="infoHash")
    url: str | None = None
    file_idx: int | None = Field(default=None, alias="fileIdx")
    behavior_hints: BehaviorHints = Field(
        default_factory=BehaviorHints, alias="behaviorHints"
    )

    @field_validator("behavior_hints", mode="before")
    @classmethod
    def _none_hints(cls, v: Any) -> Any:
        return {} if v is None else v


class DmmRecord(BaseModel):
    """Record of the DMM-cache ``/dmm/filtered`` endpoint."""

    model_config = ConfigDict(extra="ignore")

    raw_title: str
    info_hash: str
    parsed_title: str | None = None
    resolution: str | None = None
    quality: str | None = None
    size: str | None = None  # bytes, as a decimal string
    codec: str | None = None
    audio: list[str] = Field(default_factory=list)
    hdr: list[str] = Field(default_factory=list)
    languages: list[str] = Field(default_factory=list)
    group: str | None = None

    @field_validator("size", mode="before")
    @classmethod
    def _size_as_str(cls, v: Any) -> Any:
        if isinstance(v, int):
            return str(v)
        return v

    @field_validator("audio", "hdr", "languages", mode="before")
    @classmethod
    def _none_list(cls, v: Any) -> Any:
        return [] if v is None else v


# --- Tagged union ---


class TorrentAggregatorPayload(BaseModel):
    kind: Literal["torrent_aggregator"] = "torrent_aggregator"
    provider_id: str
    provider_name: str
    prefiltered: bool
    stream: WireStream


class DmmCachePayload(BaseModel):
    kind: Literal["dmm_cache"] = "dmm_cache"
    provider_id: str
    provider_name: str
    record: DmmRecord


class ThirdPartyPayload(BaseModel):
    kind: Literal["third_party"] = "third_party"
    provider_id: str
    provider_name: str
    stream: WireStream


class DirectDebridUrlPayload(BaseModel):
    kind: Literal["direct_debrid_url"] = "direct_debrid_url"
    provider_id: str
    provider_name: str
    url: str
    info_hash: str | None = None
    file_index: int | None = None
    name: str = ""
    title: str = ""
    description: str = ""


SourcePayload = Annotated[
    Union[
        TorrentAggregatorPayload,
        DmmCachePayload,
        ThirdPartyPayload,
        DirectDebridUrlPayload,
    ],
    Field(discriminator="kind"),
]


# --- Parsing helpers ---


def parse_wire_streams(data: Any, *, source: str) -> list[WireStream]:
    """Validate ``data["streams"]`` item by item; invalid entries are skipped."""
    if not isinstance(data, dict):
        log.warning("source_payload_not_object", source=source)
        return []
    raw = data.get("streams") or []
    if not isinstance(raw, list):
        log.warning("source_streams_not_list", source=source)
        return []

    streams: list[WireStream] = []
    for item in raw:
        try:
            streams.append(WireStream.model_validate(item))
        except ValidationError as exc:
            log.debug("source_stream_invalid", source=source, error=str(exc))
    return streams


def parse_dmm_records(data: Any) -> list[DmmRecord]:
    if not isinstance(data, list):
        log.warning("dmm_payload_not_list")
        return []

    records: list[DmmRecord] = []
    for item in data:
        try:
            records.append(DmmRecord.model_validate(item))
        except ValidationError as exc:
            log.debug("dmm_record_invalid", error=str(exc))
    return records
