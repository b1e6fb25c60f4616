"""KML layers: feature model, KML codec, tabular import and the layer service."""

from mapper.layers.feature import Feature, FeatureCollection, Layer
from mapper.layers.service import LayerAction, LayerListing, LayerService, UploadedLayer

__all__ = [
    "Feature",
    "FeatureCollection",
    "Layer",
    "LayerAction",
    "LayerListing",
    "LayerService",
    "UploadedLayer",
]
