"""Price Sentinel: scheduled price monitoring with target-price alerts."""
