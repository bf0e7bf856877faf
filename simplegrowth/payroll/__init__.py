"""Payroll: manual pay periods and the Gusto integration."""
