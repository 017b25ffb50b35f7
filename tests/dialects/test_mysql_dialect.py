from ledgerorm.dialects import MySQLDialect


def test_mysql_dialect_quotes_identifiers():
    dialect = MySQLDialect()
    assert dialect.quote_identifier("user`name") == "`user``name`"
    assert dialect.format_table("analytics.events") == "`analytics`.`events`"


def test_mysql_placeholder():
    dialect = MySQLDialect()
    assert dialect.parameter_placeholder() == "%s"


def test_mysql_transaction_statements():
    dialect = MySQLDialect()
    assert dialect.begin_sql() == "START TRANSACTION"
    assert dialect.savepoint_sql("uow_3") == "SAVEPOINT `uow_3`"
    assert not dialect.capabilities.supports_returning
