"""Shared contract types for the EduFam access engine.

Provides the identity models (Principal, ProfileRecord, SessionIdentity, Role),
task queue constants, the Temporal client factory, and the Pydantic result
envelope used across all components.
"""
