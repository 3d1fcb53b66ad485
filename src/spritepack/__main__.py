from spritepack.cli import app

app(prog_name='spritepack')
