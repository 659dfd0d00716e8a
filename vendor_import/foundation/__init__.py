"""Low-level helpers shared by the vendoring framework.

Nothing here knows about patch series or build variables:

- `config_io`: YAML declaration loading with local overlay
- `errors`: the error taxonomy
- `tools`: subprocess wrappers with a stable locale
- `encoding`: ISO-8859-1 to UTF-8 normalization
- `logging_utils`: operational logger setup
"""
