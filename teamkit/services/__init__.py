"""Team, member and invite services. Every operation returns a ServiceResult."""
