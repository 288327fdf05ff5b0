"""clone-table: recreate table structure from one SQL Server database in another."""
