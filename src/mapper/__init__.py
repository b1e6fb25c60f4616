"""OOH mapper core: record points, KML layers, geocoding and uploads.

Turns records of a hosted database into map points and manages the KML
overlay layers stored beside each project in a cloud drive.
"""
