"""Cash Flow AI: receivables forecasting, client scoring and collection recommendations."""
