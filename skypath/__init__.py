"""SkyPath – inspection flight geometry engine.

Answers two questions about a drone flight path over a triangle mesh:
- how much of the surface the on-board camera sees (core.coverage), built on
  per-viewpoint view pyramids (core.pyramid), ray-cast depth estimation
  (core.intersector) and face visibility classification (core.visibility);
- whether the path runs through geometry (core.voxel), using a voxel
  occupancy grid and 3D DDA segment traversal.

Paths are read by motion.path, scenarios by config, and the whole pipeline
is exposed through sdk.run and the ``skypath`` CLI.
"""

from .core.mesh import MeshData, load_mesh
from .core.pyramid import Pyramid, build_pyramid, vfov_to_hfov
from .core.intersector import DepthEstimator
from .core.visibility import VisibilityClassifier
from .core.coverage import CoverageCalculator, CoverageMetrics, ViewpointMetrics, PlaybackHighlight
from .core.voxel import VoxelGrid, CollisionDetector, CollisionPoint, CollisionResult
from .core.exporter import AnalysisReport
from .motion.path import Waypoint, Viewpoint, load_path, parse_path_data, path_length
from .config import EngineConfig, ScenarioConfig, load_config
