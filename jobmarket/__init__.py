# Job market ingestion library
