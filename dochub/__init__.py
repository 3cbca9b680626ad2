"""DocHub: partitioned blob storage over HTTP."""
