"""
SQLAlchemy ORM Models
Defines the transactional (source) tables the engine reads and the
analytics tables it writes.
"""

from datetime import datetime

from sqlalchemy import (
    JSON, Column, Date, DateTime, Float, ForeignKey, Index, Integer, String, Text
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, relationship

from kpi_engine.utils.helpers import utcnow

SourceBase = declarative_base()
AnalyticsBase = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), 'postgresql')


# ============================================
# SOURCE MODELS (read-only)
# ============================================

class User(SourceBase):
    """Application user (only read to resolve assignee names)."""
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    name = Column(String(255))


class Project(SourceBase):
    """Project model."""
    __tablename__ = 'project'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    start_date = Column(Date)
    end_date = Column(Date)
    status = Column(String(50))

    # Relationships
    columns = relationship("KanbanColumn", back_populates="project")
    sprints = relationship("Sprint", back_populates="project")
    tasks = relationship("Task", back_populates="project")


class KanbanColumn(SourceBase):
    """Kanban board column. Its name decides the lifecycle category."""
    __tablename__ = 'kanban_column'

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey('project.id'), nullable=False)
    name = Column(String(255), nullable=False)
    position = Column(Integer, default=0)

    project = relationship("Project", back_populates="columns")


class Sprint(SourceBase):
    """Sprint model."""
    __tablename__ = 'sprint'

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey('project.id'), nullable=False)
    name = Column(String(255), nullable=False)
    start_date = Column(Date)
    end_date = Column(Date)
    status = Column(String(50))  # 'PLANNED', 'ACTIVE', 'COMPLETED'

    project = relationship("Project", back_populates="sprints")
    tasks = relationship("Task", back_populates="sprint")


class Task(SourceBase):
    """Task model."""
    __tablename__ = 'task'

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey('project.id'), nullable=False)
    column_id = Column(Integer, ForeignKey('kanban_column.id'))
    sprint_id = Column(Integer, ForeignKey('sprint.id'))
    assignee_id = Column(Integer, ForeignKey('users.id'))
    title = Column(String(500))
    story_points = Column(Integer)
    priority = Column(String(50))
    created_at = Column(DateTime, nullable=False, default=utcnow)

    project = relationship("Project", back_populates="tasks")
    sprint = relationship("Sprint", back_populates="tasks")
    column = relationship("KanbanColumn")
    assignee = relationship("User")


class TaskStateHistory(SourceBase):
    """Append-only record of a task entering a column."""
    __tablename__ = 'task_state_history'

    id = Column(Integer, primary_key=True)
    task_id = Column(Integer, ForeignKey('task.id', ondelete='CASCADE'), nullable=False)
    from_column_id = Column(Integer, ForeignKey('kanban_column.id'))
    to_column_id = Column(Integer, ForeignKey('kanban_column.id'), nullable=False)
    changed_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index('idx_state_history_task_changed', 'task_id', 'changed_at'),
    )


# ============================================
# ANALYTICS MODELS
# ============================================

class ProjectKPI(AnalyticsBase):
    """Current KPI snapshot of a project, one row per source project."""
    __tablename__ = 'project_kpis'

    id = Column(Integer, primary_key=True)
    project_id_source = Column(Integer, nullable=False, unique=True)
    project_name = Column(String(255))
    health_score = Column(Integer, nullable=False, default=50)
    progress_percentage = Column(Float, nullable=False, default=0)
    velocity = Column(Integer, nullable=False, default=0)
    cycle_time_avg = Column(Float, nullable=False, default=0)  # days
    lead_time_avg = Column(Float, nullable=False, default=0)  # days
    blocker_count = Column(Integer, nullable=False, default=0)
    workload_distribution = Column(JSONType, nullable=False, default=dict)
    last_updated = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class SprintKPI(AnalyticsBase):
    """Current KPI snapshot of a sprint, one row per source sprint."""
    __tablename__ = 'sprint_kpis'

    id = Column(Integer, primary_key=True)
    sprint_id_source = Column(Integer, nullable=False, unique=True)
    project_id_source = Column(Integer, nullable=False, index=True)
    sprint_name = Column(String(255))
    velocity = Column(Integer, nullable=False, default=0)
    tasks_completed = Column(Integer, nullable=False, default=0)
    story_points_completed = Column(Integer, nullable=False, default=0)
    tasks_total = Column(Integer, nullable=False, default=0)
    completion_percentage = Column(Float, nullable=False, default=0)
    cycle_time_avg = Column(Float, nullable=False, default=0)
    lead_time_avg = Column(Float, nullable=False, default=0)
    sprint_status = Column(String(50), nullable=False, default='PLANNED')
    start_date = Column(Date)
    end_date = Column(Date)
    last_updated = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class EtlLog(AnalyticsBase):
    """ETL run tracking model."""
    __tablename__ = 'etl_logs'

    id = Column(Integer, primary_key=True)
    status = Column(String(20), nullable=False, default='RUNNING')  # 'RUNNING', 'SUCCESS', 'FAILED'
    projects_processed = Column(Integer, nullable=False, default=0)
    sprints_processed = Column(Integer, nullable=False, default=0)
    duration_ms = Column(Integer)
    error_message = Column(Text)
    error_detail = Column(Text)
    started_at = Column(DateTime, nullable=False, default=utcnow)
    finished_at = Column(DateTime)

    __table_args__ = (
        Index('idx_etl_logs_started_at', 'started_at'),
    )
