"""Provider access package.

Architectural role:
    Provides provider configuration, slug normalization, catalog filtering, and
    transport adapters used by the dispatch layer.

Module split:
    - `provider_config`: environment-driven endpoints, timeouts, and key loading.
    - `model_maps` / `model_transformer`: aggregator slug -> provider-native id.
    - `model_utils`: image-model classifier and capability sets.
    - `catalog`: per-provider filtering of the aggregator listing.
    - `discovery`: keyed model listing against provider APIs.
    - `client`: provider-specific HTTP transport and response parsing.
    - `errors`: error types and upstream error-message extraction.
"""
