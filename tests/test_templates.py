"""
Тесты для сервиса шаблонов сертификатов
"""
import pytest

from train_cert.exceptions import InvalidArgumentError
from train_cert.models import TemplateRequest, TemplateUpdateRequest


def template_request(**overrides):
    data = {
        "template_name": "Охрана труда, стандарт",
        "template_type": "safety",
        "template_path": "templates/safety.html",
        "template_config": {"orientation": "landscape"},
        "field_mapping": {"holder_name": "userName"},
    }
    data.update(overrides)
    return TemplateRequest(**data)


class TestCreateTemplate:
    """Создание шаблона"""

    def test_create(self, template_service):
        template = template_service.create_template(template_request(description="Базовый"))

        assert template.id
        assert template.template_type == "safety"
        assert template.is_active is True
        assert template.is_default is False
        assert template.field_mapping == {"holder_name": "userName"}

    @pytest.mark.parametrize("overrides", [
        {"template_name": None},
        {"template_name": ""},
        {"template_type": None},
        {"template_type": "training"},
    ])
    def test_required_fields(self, template_service, overrides):
        """Без названия и известного типа шаблон не создается"""
        with pytest.raises(InvalidArgumentError):
            template_service.create_template(template_request(**overrides))

    def test_one_default_per_type(self, template_service):
        first = template_service.create_template(template_request(is_default=True))
        other_type = template_service.create_template(
            template_request(template_name="Навыки", template_type="skill", is_default=True)
        )

        second = template_service.create_template(template_request(template_name="Новый", is_default=True))

        assert template_service.get_default_template("safety").id == second.id
        assert template_service.template_repo.get_by_id(first.id).is_default is False
        assert template_service.get_default_template("skill").id == other_type.id


class TestUpdateTemplate:
    """Изменение шаблона"""

    def test_update_only_given_fields(self, template_service):
        template = template_service.create_template(template_request())

        updated = template_service.update_template(
            template.id, TemplateUpdateRequest(template_name="Охрана труда, 2024", template_path=None)
        )

        assert updated.template_name == "Охрана труда, 2024"
        assert updated.template_path is None
        assert updated.field_mapping == {"holder_name": "userName"}

    def test_make_default(self, template_service):
        first = template_service.create_template(template_request(is_default=True))
        second = template_service.create_template(template_request(template_name="Второй"))

        template_service.update_template(second.id, TemplateUpdateRequest(is_default=True))

        assert template_service.get_default_template("safety").id == second.id
        assert template_service.template_repo.get_by_id(first.id).is_default is False

    @pytest.mark.parametrize("update", [
        TemplateUpdateRequest(template_name=""),
        TemplateUpdateRequest(template_type="unknown"),
    ])
    def test_invalid_update(self, template_service, update):
        template = template_service.create_template(template_request())

        with pytest.raises(InvalidArgumentError):
            template_service.update_template(template.id, update)

    def test_update_unknown(self, template_service):
        with pytest.raises(InvalidArgumentError):
            template_service.update_template("404", TemplateUpdateRequest(template_name="Новое"))


class TestTemplateQueries:
    """Копирование, списки и проверка шаблонов"""

    def test_duplicate(self, template_service):
        source = template_service.create_template(template_request(is_default=True))

        copy = template_service.duplicate_template(source.id)

        assert copy.id != source.id
        assert copy.template_name == "Охрана труда, стандарт (копия)"
        assert copy.template_config == source.template_config
        assert copy.is_default is False
        assert copy.is_active is False
        assert template_service.get_default_template("safety").id == source.id

    def test_duplicate_unknown(self, template_service):
        with pytest.raises(InvalidArgumentError):
            template_service.duplicate_template("404")

    def test_available_templates(self, template_service):
        template_service.create_template(template_request(template_name="Б"))
        template_service.create_template(template_request(template_name="А"))
        template_service.create_template(template_request(template_name="В", template_type="skill"))
        template_service.create_template(template_request(template_name="Г", is_active=False))

        assert [t.template_name for t in template_service.get_available_templates("safety")] == ["А", "Б"]
        assert len(template_service.get_available_templates()) == 3

    def test_inactive_default_ignored(self, template_service):
        template_service.create_template(template_request(is_default=True, is_active=False))

        assert template_service.get_default_template("safety") is None
        assert template_service.get_default_template() is None

    def test_validate_template(self, template_service, tmp_path):
        template_file = tmp_path / "safety.html"
        template_file.write_text("<html></html>", encoding="utf-8")
        template = template_service.create_template(template_request(template_path=str(template_file)))

        result = template_service.validate_template(template.id)

        assert result.valid is True
        assert result.errors == []
        assert result.warnings == []

    def test_validate_template_problems(self, template_service, tmp_path):
        template = template_service.create_template(template_request(
            template_path=str(tmp_path / "missing.html"), template_config={}, field_mapping={}
        ))

        result = template_service.validate_template(template.id)

        assert result.valid is False
        assert len(result.errors) == 1
        assert len(result.warnings) == 2
