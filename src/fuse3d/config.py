"""配置模型（dataclass）与 YAML/JSON 加载。

目标：
- 用 dataclass 表达融合流水线所需的相机与运行参数
- 支持从 `.yaml/.yml/.json` 加载

示例（YAML）：

    inbound_capacity: 2
    outbound_capacity: 2
    status_interval_s: 5
    log_level: INFO
    cameras:
      - name: front
        intrinsics_file: front_intrinsics.yaml   # 相对本配置文件所在目录
        extrinsics:
          type: quaternion
          rot_wijk: [0.5, 0.5, -0.5, 0.5]
          trans_xyz: [0.0, 0.0, 0.0]
        rotate_180: false
        detection_hw: [640, 640]

说明：
- 内参既可以内联（camera_matrix / distortion_coefficients / image_height / image_width），
  也可以放在单独的标定文件里（intrinsics_file），字段名与标定工具输出一致；
  矩阵可写成 {rows, cols, data} 或嵌套列表。
- 外参同理：内联 extrinsics 或 extrinsics_file。
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import numpy as np

from fuse3d.errors import CameraConfigError
from fuse3d.geometry.camera import CameraModel, CameraSetup
from fuse3d.geometry.extrinsics import parse_extrinsics


def _load_mapping(path: Path) -> dict[str, Any]:
    path = Path(path)
    suf = path.suffix.lower()

    if suf == ".json":
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    elif suf in {".yaml", ".yml"}:
        import yaml

        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    else:
        raise RuntimeError(f"不支持的配置文件类型: {path}（仅支持 .json/.yaml/.yml）")

    if not isinstance(data, dict):
        raise RuntimeError(f"配置文件顶层必须是对象（dict）: {path}")

    return data


def _as_matrix_data(x: Any, what: str) -> np.ndarray:
    """{rows, cols, data} 或嵌套列表 -> ndarray(float64)。"""

    if isinstance(x, Mapping):
        try:
            rows = int(x["rows"])
            cols = int(x["cols"])
            data = list(x["data"])
        except (KeyError, TypeError, ValueError) as exc:
            raise CameraConfigError(f"{what} must contain rows/cols/data") from exc
        if rows * cols != len(data):
            raise CameraConfigError(
                f"{what}: data size ({len(data)}) does not match rows ({rows}) and cols ({cols})"
            )
        return np.asarray(data, dtype=np.float64).reshape(rows, cols)

    try:
        return np.asarray(x, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise CameraConfigError(f"{what} must be a matrix") from exc


def _as_hw(x: Any, what: str) -> tuple[int, int] | None:
    if x is None:
        return None
    if not isinstance(x, (list, tuple)) or len(x) != 2:
        raise CameraConfigError(f"{what} must be [height, width]")
    return (int(x[0]), int(x[1]))


@dataclass(frozen=True)
class CameraConfig:
    name: str
    image_hw: tuple[int, int]
    camera_matrix: np.ndarray
    distortion_coefficients: np.ndarray
    extrinsics: dict[str, Any]
    rotate_180: bool = False
    # 检测器输入分辨率；None 表示检测框已经是图像坐标。
    detection_hw: tuple[int, int] | None = None
    min_depth_m: float = 1e-3
    min_range_m: float = 1.0


@dataclass(frozen=True)
class FusionAppConfig:
    cameras: list[CameraConfig]
    inbound_capacity: int = 2
    outbound_capacity: int = 2
    status_interval_s: float = 0.0
    log_level: str = "INFO"


def _load_camera(data: Mapping[str, Any], base_dir: Path) -> CameraConfig:
    name = str(data.get("name", "")).strip()
    if not name:
        raise CameraConfigError("camera config requires a non-empty 'name'")

    intr: Mapping[str, Any] = data
    intr_file = data.get("intrinsics_file")
    if intr_file is not None:
        intr = _load_mapping(base_dir / str(intr_file))

    if "camera_matrix" not in intr:
        raise CameraConfigError(f"camera '{name}': missing camera_matrix")
    K = _as_matrix_data(intr["camera_matrix"], f"camera '{name}' camera_matrix")
    dist = _as_matrix_data(intr.get("distortion_coefficients", []), f"camera '{name}' distortion_coefficients")

    image_hw = _as_hw(data.get("image_hw"), f"camera '{name}' image_hw")
    if image_hw is None:
        if "image_height" not in intr or "image_width" not in intr:
            raise CameraConfigError(f"camera '{name}': image size is missing (image_hw or image_height/image_width)")
        image_hw = (int(intr["image_height"]), int(intr["image_width"]))

    extr = data.get("extrinsics")
    extr_file = data.get("extrinsics_file")
    if extr is None and extr_file is not None:
        extr = _load_mapping(base_dir / str(extr_file))
    if not isinstance(extr, Mapping):
        raise CameraConfigError(f"camera '{name}': extrinsics must be an object (extrinsics or extrinsics_file)")

    return CameraConfig(
        name=name,
        image_hw=image_hw,
        camera_matrix=K,
        distortion_coefficients=dist.reshape(-1),
        extrinsics=dict(extr),
        rotate_180=bool(data.get("rotate_180", False)),
        detection_hw=_as_hw(data.get("detection_hw"), f"camera '{name}' detection_hw"),
        min_depth_m=float(data.get("min_depth_m", 1e-3)),
        min_range_m=float(data.get("min_range_m", 1.0)),
    )


def load_fusion_config(path: Path) -> FusionAppConfig:
    """加载融合流水线配置。"""

    path = Path(path)
    data = _load_mapping(path)

    cams_raw = data.get("cameras")
    if not isinstance(cams_raw, list) or not cams_raw:
        raise RuntimeError("fusion config requires non-empty 'cameras' list")
    for c in cams_raw:
        if not isinstance(c, dict):
            raise RuntimeError("fusion config field 'cameras' must be a list of objects")

    cameras = [_load_camera(c, path.parent) for c in cams_raw]

    seen: set[str] = set()
    for cam in cameras:
        if cam.name in seen:
            raise CameraConfigError(f"duplicated camera name: {cam.name}")
        seen.add(cam.name)

    return FusionAppConfig(
        cameras=cameras,
        inbound_capacity=int(data.get("inbound_capacity", 2)),
        outbound_capacity=int(data.get("outbound_capacity", 2)),
        status_interval_s=float(data.get("status_interval_s", 0.0)),
        log_level=str(data.get("log_level", "INFO")).strip().upper(),
    )


def build_camera_setups(cfg: FusionAppConfig) -> dict[str, CameraSetup]:
    """配置 -> 相机名到 CameraSetup 的映射（按配置顺序）。

    Raises:
        CameraConfigError: 任意相机的内外参非法。
    """

    setups: dict[str, CameraSetup] = {}
    for cam in cfg.cameras:
        R, t = parse_extrinsics(cam.extrinsics)
        model = CameraModel(
            name=cam.name,
            image_height=cam.image_hw[0],
            image_width=cam.image_hw[1],
            camera_matrix=cam.camera_matrix,
            dist_coeffs=cam.distortion_coefficients,
            rotation=R,
            translation=t,
            min_depth_m=cam.min_depth_m,
            min_range_m=cam.min_range_m,
        )
        setups[cam.name] = CameraSetup(model=model, rotate_180=cam.rotate_180, detection_hw=cam.detection_hw)
    return setups
