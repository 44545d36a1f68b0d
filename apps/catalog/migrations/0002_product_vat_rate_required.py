from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("catalog", "0001_initial"),
    ]

    operations = [
        migrations.AlterField(
            model_name="product",
            name="vat_rate",
            field=models.DecimalField(decimal_places=2, max_digits=5),
        ),
    ]
