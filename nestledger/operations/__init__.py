"""Operations layer for billing workflows and gateway integrations."""
