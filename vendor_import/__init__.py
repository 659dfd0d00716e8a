"""Vendor an upstream source release with a regeneratable patch series.

Run `python -m vendor_import --help` (or the `vendor-import` script) for the
command surface.
"""
