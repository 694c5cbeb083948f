"""Swap large display images on live web pages for catalog images."""

from .catalog import Catalog, CatalogError, RecencyWindow
from .classifier import LayoutClassifier, Verdict
from .config import SkinConfig
from .executor import ReplacementExecutor, rewrite_srcset
from .pipeline import ObservationPipeline
from .selector import CategorySelector, Selection, choose_category
from .snapshot import ImageSnapshot
from .transparency import TransparencyDetector, alpha_stats

__version__ = "0.1.0"
