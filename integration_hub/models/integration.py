from sqlalchemy import Column, String, Text, DateTime, JSON, Boolean, Integer, Float
from .base import BaseModel


class IntegrationRecord(BaseModel):
    __tablename__ = "integrations"

    organization_id = Column(String, nullable=True, index=True)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False, default="custom")  # database, communication, ecommerce
    provider = Column(String, nullable=False, index=True)  # airtable, slack, notion, stripe
    status = Column(String, nullable=False, default="active")  # active, inactive, error, syncing, disconnected

    # Secrets and provider settings
    config = Column(JSON, nullable=False, default=dict)

    last_sync_at = Column(DateTime(timezone=True), nullable=True)
    last_error_at = Column(DateTime(timezone=True), nullable=True)
    last_error_message = Column(Text, nullable=True)


class WorkflowRecord(BaseModel):
    __tablename__ = "integration_workflows"

    organization_id = Column(String, nullable=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(String, nullable=False, default="active")  # active, inactive, running, error

    # Step definitions and run policy
    steps = Column(JSON, nullable=False, default=list)
    config = Column(JSON, nullable=False, default=dict)

    # Run counters
    execution_count = Column(Integer, nullable=False, default=0)
    success_count = Column(Integer, nullable=False, default=0)
    error_count = Column(Integer, nullable=False, default=0)
    average_execution_time = Column(Float, nullable=False, default=0.0)  # ms
    last_execution_time = Column(Float, nullable=True)  # ms
    last_executed_at = Column(DateTime(timezone=True), nullable=True)


class IntegrationEventRecord(BaseModel):
    __tablename__ = "integration_events"

    integration_id = Column(String, nullable=True, index=True)
    workflow_id = Column(String, nullable=True, index=True)
    type = Column(String, nullable=False)  # workflow_error, workflow_step_error, connection_error
    severity = Column(String, nullable=False)  # critical, high, medium, low
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    data = Column(JSON, nullable=False, default=dict)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    resolved = Column(Boolean, nullable=False, default=False)
