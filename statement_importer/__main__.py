from statement_importer.cli import app

app(prog_name="statement-import")
