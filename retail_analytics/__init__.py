"""
Retail Sales Analytics

Weekly store-sales and SKU performance spreadsheet ingestion with
store-to-SKU allocation into a weekly sales star schema.
"""

__version__ = "1.0.0"
