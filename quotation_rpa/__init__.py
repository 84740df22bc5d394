"""Browser automation that enters quotation line items into the Cortizo portal."""

__version__ = "0.1.0"
