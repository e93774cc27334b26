from invoke import Collection

from photovault.cli.batch_upload import batch_upload

ns = Collection(batch_upload)
