"""Provider layer: model registry, HTTP adapters and the fan-out gateway."""
