from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from datetime import datetime
import uuid
from app.database import Base


class ResearchOrganization(Base):
    """External publisher whose content is crawled. Seeded from the static organization table."""
    __tablename__ = "research_organizations"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, nullable=False)
    org_type = Column(String(50), nullable=True)  # consulting, audit
    tier = Column(String(50), nullable=True)  # tier1_consulting, tier2_big4
    trust_weight = Column(Float, default=0.5, nullable=False)  # 0.0-1.0
    official_website = Column(String(500), nullable=True)
    verified_website = Column(String(500), nullable=True)
    website_confidence = Column(Float, nullable=True)
    crawl_policy = Column(JSONB, nullable=False, default=dict)  # seeded copy of CrawlPolicy
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class ResearchDocument(Base):
    """One discovered publication, deduplicated by sha256(url)."""
    __tablename__ = "research_documents"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey("research_organizations.id"), nullable=False)
    source_type = Column(String(100), nullable=False)  # organization slug
    title = Column(Text, nullable=False)
    summary = Column(Text, nullable=True)  # feed <description>, when present
    document_type = Column(String(50), default="insight", nullable=False)  # report, benchmark, analysis, whitepaper, insight
    url = Column(Text, nullable=False)
    hash_sha256 = Column(String(64), unique=True, nullable=False)
    publication_date = Column(DateTime, nullable=True)
    confidence_score = Column(Float, nullable=True)  # trust weight at discovery time
    processing_status = Column(String(20), default="pending", nullable=False)  # pending, processed, failed
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_research_documents_processing_status", "processing_status"),
        Index("ix_research_documents_organization_id", "organization_id"),
    )


class DocumentChunk(Base):
    """Slice of a document's extracted plain text. Offsets index into that text."""
    __tablename__ = "document_chunks"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    document_id = Column(
        UUID(as_uuid=True),
        ForeignKey("research_documents.id", ondelete="CASCADE"),
        nullable=False,
    )
    chunk_index = Column(Integer, nullable=False)  # 0-based, gapless within a document
    text = Column(Text, nullable=False)
    start_offset = Column(Integer, nullable=False)
    end_offset = Column(Integer, nullable=False)
    has_metrics = Column(Boolean, default=False, nullable=False)
    has_citations = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("document_id", "chunk_index", name="uq_document_chunks_document_index"),
        CheckConstraint("end_offset > start_offset", name="ck_document_chunks_offsets"),
    )


class CrawlLog(Base):
    """One row per orchestrated crawl run: inserted as 'started', finished in place."""
    __tablename__ = "research_crawl_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey("research_organizations.id"), nullable=False)
    crawl_type = Column(String(50), default="scheduled", nullable=False)  # scheduled, manual
    status = Column(String(30), default="started", nullable=False)  # started, completed, completed_with_errors
    started_at = Column(DateTime, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    documents_found = Column(Integer, default=0, nullable=False)
    errors = Column(JSONB, nullable=True)  # list[str]; NULL when the run had no errors
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
