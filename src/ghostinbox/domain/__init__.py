"""Domain layer: collaborator ports consumed by the relay and mitigation engine."""
