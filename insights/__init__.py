"""
Insights package: composes trend, anomaly, collaboration, quality and health analyses into bundles.

Import the composer from insights.composer; this module stays import-light so scoring can depend on
insights.errors without a cycle.
"""
