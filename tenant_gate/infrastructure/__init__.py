"""Infraestructura del gate: DB, repositorios y adapters de servicios externos."""
