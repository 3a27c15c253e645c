"""Non-Maximum Suppression and detection-head parsing.

non_max_suppression is the deterministic greedy NMS used on caller-supplied
detections: candidates are ordered by descending score with ties broken by
input position, so identical inputs always give identical survivors.

parse_yolo_output decodes a YOLOv8-style head ([1, 4 + K, N], no
objectness score) and runs class-aware NMS on top of non_max_suppression.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence, Union

import numpy as np

from vision_utils.config import get_default
from vision_utils.errors import ErrorCode, VisionUtilsError
from vision_utils.postprocess.boxes import BoxFormat, _resolve_strict, box_iou, to_xyxy

logger = logging.getLogger(__name__)

DetectionLike = Union["Detection", Mapping[str, Any]]


@dataclass(frozen=True)
class Detection:
    """A scored box with optional class metadata.

    Attributes:
        box: 4 coordinates in the format tagged by the caller
        score: Confidence score
        class_index: Optional class id
        label: Optional class label
        color: Optional display color
    """

    box: tuple[float, ...]
    score: float
    class_index: Optional[int] = None
    label: Optional[str] = None
    color: Optional[tuple[int, ...]] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Detection":
        """Build from a bridge map ({"box", "score", "classIndex"|"class_index", ...})."""
        class_index = data.get("class_index", data.get("classIndex"))
        color = data.get("color")
        return cls(
            box=tuple(float(v) for v in data["box"]),
            score=float(data.get("score", 0.0)),
            class_index=None if class_index is None else int(class_index),
            label=data.get("label"),
            color=None if color is None else tuple(color),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"box": list(self.box), "score": self.score}
        if self.class_index is not None:
            out["class_index"] = self.class_index
        if self.label is not None:
            out["label"] = self.label
        if self.color is not None:
            out["color"] = list(self.color)
        return out


@dataclass
class NMSResult:
    """Survivors of non_max_suppression.

    Attributes:
        indices: Kept input indices, ascending
        detections: Kept detections exactly as they were passed in
        suppressed_count: len(input) - len(indices)
        processing_time_ms: Wall time spent
    """

    indices: list[int]
    detections: list[DetectionLike] = field(default_factory=list)
    suppressed_count: int = 0
    processing_time_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "indices": list(self.indices),
            "detections": [d.to_dict() if isinstance(d, Detection) else dict(d) for d in self.detections],
            "suppressed_count": self.suppressed_count,
            "processing_time_ms": self.processing_time_ms,
        }


def _box_and_score(detection: DetectionLike) -> tuple[Sequence[float], float]:
    if isinstance(detection, Detection):
        return detection.box, detection.score
    return detection["box"], float(detection.get("score", 0.0))


def non_max_suppression(
    detections: Sequence[DetectionLike],
    iou_threshold: Optional[float] = None,
    score_threshold: Optional[float] = None,
    max_detections: Optional[int] = None,
    box_format: "BoxFormat | str" = BoxFormat.XYXY,
    strict: Optional[bool] = None,
) -> NMSResult:
    """
    Greedy Non-Maximum Suppression with deterministic tie-breaking.

    Detections scoring below score_threshold are dropped. The rest are
    visited by descending score (equal scores keep input order); each
    selected box suppresses every remaining box with IoU strictly greater
    than iou_threshold. Selection stops after max_detections survivors.

    Args:
        detections: Detection objects or {"box", "score", ...} mappings
        iou_threshold: Suppression threshold (default from config)
        score_threshold: Minimum score (default from config)
        max_detections: Maximum survivors (default from config)
        box_format: Format of the boxes
        strict: Reject malformed boxes (default: Settings.STRICT_BOX_FORMAT);
            in lenient mode they are dropped

    Returns:
        NMSResult with survivors in input order and their fields untouched

    Raises:
        VisionUtilsError: INVALID_OPTIONS for malformed boxes (strict mode)
            or a negative max_detections

    Example:
        >>> dets = [
        ...     {"box": [100, 100, 200, 200], "score": 0.9},
        ...     {"box": [110, 110, 210, 210], "score": 0.8},
        ...     {"box": [300, 300, 400, 400], "score": 0.7},
        ... ]
        >>> non_max_suppression(dets, iou_threshold=0.5, score_threshold=0.3).indices
        [0, 2]
    """
    start_time = time.perf_counter()

    if iou_threshold is None:
        iou_threshold = get_default("nms", "iou_threshold")
    if score_threshold is None:
        score_threshold = get_default("nms", "score_threshold")
    if max_detections is None:
        max_detections = get_default("nms", "max_detections")
    if max_detections < 0:
        raise VisionUtilsError(
            ErrorCode.INVALID_OPTIONS, f"max_detections must be >= 0, got {max_detections}"
        )

    fmt = BoxFormat.parse(box_format)
    strict = _resolve_strict(strict)

    candidates: list[int] = []
    boxes: list[Sequence[float]] = []
    scores: list[float] = []
    for i, detection in enumerate(detections):
        box, score = _box_and_score(detection)
        if len(box) != 4:
            if strict:
                raise VisionUtilsError(
                    ErrorCode.INVALID_OPTIONS,
                    f"Detection at index {i} has a box with {len(box)} values, expected 4",
                )
            continue
        if score >= score_threshold:
            candidates.append(i)
            boxes.append(box)
            scores.append(score)

    kept: list[int] = []
    if candidates and max_detections > 0:
        xyxy = to_xyxy(np.asarray(boxes, dtype=np.float64), fmt)
        # Stable descending sort: ties resolve by input position
        order = sorted(range(len(candidates)), key=lambda k: (-scores[k], candidates[k]))
        suppressed = np.zeros(len(candidates), dtype=bool)

        for pos, k in enumerate(order):
            if suppressed[k]:
                continue
            kept.append(candidates[k])
            if len(kept) >= max_detections:
                break

            rest = np.array([j for j in order[pos + 1:] if not suppressed[j]], dtype=np.int64)
            if len(rest) == 0:
                break
            ious = box_iou(xyxy[k], xyxy[rest])
            suppressed[rest[ious > iou_threshold]] = True

    kept.sort()
    elapsed_ms = (time.perf_counter() - start_time) * 1000

    logger.debug(
        f"NMS kept {len(kept)} of {len(detections)} detections",
        extra={"operation": "nms", "count": len(kept), "latency_ms": round(elapsed_ms, 3)},
    )

    return NMSResult(
        indices=kept,
        detections=[detections[i] for i in kept],
        suppressed_count=len(detections) - len(kept),
        processing_time_ms=elapsed_ms,
    )


def parse_yolo_output(
    raw_output: np.ndarray,
    confidence_threshold: Optional[float] = None,
    iou_threshold: Optional[float] = None,
    max_detections: Optional[int] = None,
    labels: Optional[Sequence[str]] = None,
) -> list[Detection]:
    """Parse YOLO output and apply class-aware NMS.

    Handles YOLOv8-style output format: [batch, 4 + K, num_predictions]
    - 4 box values (cx, cy, w, h) followed by K class scores
    - No separate objectness score

    NMS runs independently per class so overlapping objects of different
    types do not suppress each other.

    Args:
        raw_output: Model output with shape [1, 4 + K, N]
        confidence_threshold: Minimum class score (default from config)
        iou_threshold: IoU threshold for NMS (default from config)
        max_detections: Cap on total detections (default from config)
        labels: Optional class-name table used to fill Detection.label

    Returns:
        Detections with XYXY boxes, sorted by descending score

    Raises:
        VisionUtilsError: INVALID_DIMENSIONS if the output is not [1, 4 + K, N]
    """
    raw_output = np.asarray(raw_output)
    if raw_output.ndim != 3 or raw_output.shape[0] != 1 or raw_output.shape[1] < 5:
        raise VisionUtilsError(
            ErrorCode.INVALID_DIMENSIONS,
            f"Expected output shape [1, 4 + K, N], got {raw_output.shape}",
        )

    if confidence_threshold is None:
        confidence_threshold = get_default("nms", "score_threshold")
    if max_detections is None:
        max_detections = get_default("nms", "max_detections")

    # Remove batch dimension and transpose to [num_predictions, 4 + K]
    predictions = raw_output[0].T.astype(np.float64)
    boxes = to_xyxy(predictions[:, :4], BoxFormat.CXCYWH)
    class_scores = predictions[:, 4:]

    confidences = class_scores.max(axis=1)
    class_ids = class_scores.argmax(axis=1)

    mask = confidences >= confidence_threshold
    if not mask.any():
        return []

    survivors: list[Detection] = []
    for cls in np.unique(class_ids[mask]):
        cls_indices = np.where(mask & (class_ids == cls))[0]
        cls_detections = [
            Detection(
                box=tuple(boxes[i].tolist()),
                score=float(confidences[i]),
                class_index=int(cls),
                label=labels[int(cls)] if labels is not None and int(cls) < len(labels) else None,
            )
            for i in cls_indices
        ]
        result = non_max_suppression(
            cls_detections,
            iou_threshold=iou_threshold,
            score_threshold=confidence_threshold,
            max_detections=max_detections,
        )
        survivors.extend(result.detections)

    survivors.sort(key=lambda d: -d.score)
    return survivors[:max_detections]
