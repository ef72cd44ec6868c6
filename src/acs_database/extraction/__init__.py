# ABOUTME: Data extraction from the SCP wiki: page fetching, ACS classification and link harvesting
# ABOUTME: Pipeline Stage 1: Remote pages → classification outcomes, name rosters and backlink sets

"""
Extraction Layer: Get raw data from the wiki

This layer handles:
- Bounded, retried page fetching
- Two-tier ACS classification of page content
- Series index name harvesting and component backlink harvesting

Data Flow: Wiki pages → Classification outcomes → core/ record assembly
"""

# The extraction layer provides fetchers, harvesters and the classifier
# Records are assembled in acs_database.core.service
