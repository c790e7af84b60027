"""Offline snapshot tables - per-user mirror of the unfiltered first page."""

OFFLINE_REQUIREMENT_DDL = """
CREATE TABLE IF NOT EXISTS offline_requirement (
    user_id VARCHAR NOT NULL,
    id VARCHAR NOT NULL,
    position INTEGER NOT NULL,
    requirement_number INTEGER,
    title VARCHAR,
    status VARCHAR,
    company VARCHAR,
    end_client VARCHAR,
    description VARCHAR,
    location VARCHAR,
    consultant_id VARCHAR,
    applied_for VARCHAR,
    rate DOUBLE,
    primary_tech_stack VARCHAR,
    imp_name VARCHAR,
    client_website VARCHAR,
    imp_website VARCHAR,
    vendor_company VARCHAR,
    vendor_website VARCHAR,
    vendor_person_name VARCHAR,
    vendor_phone VARCHAR,
    vendor_email VARCHAR,
    next_step VARCHAR,
    remote VARCHAR,
    duration VARCHAR,
    created_by VARCHAR,
    updated_by VARCHAR,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    PRIMARY KEY (user_id, id)
)
"""

OFFLINE_SNAPSHOT_DDL = """
CREATE TABLE IF NOT EXISTS offline_snapshot (
    user_id VARCHAR PRIMARY KEY,
    cached_at TIMESTAMP NOT NULL,
    expires_at TIMESTAMP NOT NULL,
    count INTEGER NOT NULL
)
"""
