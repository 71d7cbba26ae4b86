"""
CLI интерфейс для проверки и сопровождения сертификатов
"""
import argparse
import json
import logging
import sys
from datetime import date, datetime
from typing import List, Optional

from config import Settings, get_settings, setup_logging
from train_cert.cleanup import CertificateCleanupService
from train_cert.database import DatabaseManager
from train_cert.evaluator import Clock
from train_cert.exceptions import CertificateError, ValidationError
from train_cert.generator import configure_snowflake
from train_cert.models import IssueCertificateRequest, VerifyResult
from train_cert.service import CertificateService
from train_cert.templates import CertificateTemplateService
from train_cert.verification import CertificateVerificationService


def parse_date(value: str) -> date:
    """Разбор даты в формате YYYY-MM-DD для argparse"""
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise argparse.ArgumentTypeError(f"Неверный формат даты: {value}, ожидается YYYY-MM-DD")


class CertificateCLI:
    """CLI интерфейс для работы с сертификатами"""

    def __init__(self, settings: Optional[Settings] = None, db_manager: Optional[DatabaseManager] = None,
                 clock: Optional[Clock] = None, configure_logging: bool = True):
        self.settings = settings or get_settings()
        if configure_logging:
            setup_logging(self.settings)
        self.logger = logging.getLogger(__name__)

        configure_snowflake(self.settings.worker_id)
        self.db_manager = db_manager or DatabaseManager(self.settings.sqlalchemy_url, self.settings.db_echo)
        self.clock = clock or datetime.now

        self.verification_service = CertificateVerificationService(self.db_manager, self.clock, self.settings)
        self.certificate_service = CertificateService(self.db_manager, self.clock, self.settings)
        self.cleanup_service = CertificateCleanupService(self.db_manager, self.clock)
        self.template_service = CertificateTemplateService(self.db_manager)

    def init_db(self, args):
        """Создание таблиц"""
        self.db_manager.create_tables()
        print("✓ Таблицы базы данных созданы")

    def print_result(self, result: VerifyResult):
        """Вывод результата проверки"""
        mark = "✓" if result.valid else "✗"
        print(f"{mark} {result.message}")

        if result.data:
            data = result.data
            print(f"  Номер: {data.certificate_number}")
            print(f"  Название: {data.title}")
            print(f"  Владелец: {data.holder_name or '-'}")
            print(f"  Тип: {data.certificate_type}")
            print(f"  Выдан: {data.issue_date.isoformat()} ({data.issuing_authority})")
            print(f"  Действует до: {data.expiry_date.isoformat() if data.expiry_date else 'бессрочно'}")

        for warning in result.warnings:
            print(f"  ⚠ {warning}")

    def verify(self, args):
        """Проверка сертификата по номеру"""
        self.print_result(self.verification_service.verify_by_certificate_number(args.certificate_number))

    def verify_code(self, args):
        """Проверка сертификата по коду проверки"""
        self.print_result(self.verification_service.verify_by_verification_code(args.verification_code))

    def batch_verify(self, args):
        """Пакетная проверка сертификатов"""
        numbers = list(args.certificate_numbers)
        if args.file:
            with open(args.file, encoding="utf-8") as f:
                numbers.extend(line.strip() for line in f if line.strip())

        if not numbers:
            raise ValidationError("Не указаны номера сертификатов")

        results = self.verification_service.batch_verify(numbers)
        valid_count = sum(1 for result in results.values() if result.valid)

        for number, result in results.items():
            mark = "✓" if result.valid else "✗"
            print(f"{mark} {number}: {result.message}")
        print(f"Итого: {len(results)}, действительных: {valid_count}")

    def details(self, args):
        """Сведения о сертификате"""
        details = self.verification_service.get_certificate_details(args.certificate_number)
        if details is None:
            print(f"✗ Сертификат {args.certificate_number} не найден")
            sys.exit(1)

        print("✓ Сертификат найден:")
        print(f"  ID: {details.certificate_id}")
        print(f"  Номер: {details.certificate_number}")
        print(f"  Код проверки: {details.verification_code}")
        print(f"  Название: {details.title}")
        print(f"  Владелец: {details.holder_name or '-'}")
        print(f"  Период: {details.issue_date.isoformat()} - "
              f"{details.expiry_date.isoformat() if details.expiry_date else 'бессрочно'}")

        # Статус
        if not details.is_valid:
            print("  Статус: ✗ ОТОЗВАН")
        elif details.is_expired:
            print("  Статус: ✗ ИСТЕК")
        else:
            print("  Статус: ✓ ДЕЙСТВИТЕЛЕН")

    def history(self, args):
        """История проверок сертификата"""
        entries = self.verification_service.get_verification_history(args.certificate_id)
        if not entries:
            print("  Проверок не найдено")
            return

        for entry in entries:
            mark = "✓" if entry.verification_result else "✗"
            print(f"  {entry.verification_time.strftime('%d.%m.%Y %H:%M:%S')} {mark} "
                  f"{entry.verification_method} {entry.ip_address or '-'}")

    def statistics(self, args):
        """Статистика сертификатов и проверок"""
        verifications = self.verification_service.get_verification_statistics(args.start, args.end)
        certificates = self.certificate_service.get_statistics()["certificates"]

        if args.format == "json":
            print(json.dumps(
                {"certificates": certificates, "verifications": verifications.model_dump()},
                ensure_ascii=False, indent=2
            ))
            return

        print("Сертификаты:")
        print(f"  Всего: {certificates['total_certificates']}")
        print(f"  Действительных: {certificates['valid_certificates']}")
        print(f"  Отозванных: {certificates['revoked_certificates']}")
        print(f"  Истекших: {certificates['expired_certificates']}")
        print(f"  Истекают в течение 30 дней: {certificates['expiring_certificates']}")
        for certificate_type, count in certificates["by_type"].items():
            print(f"  Тип {certificate_type}: {count}")

        print("Проверки:")
        print(f"  Всего: {verifications.total}")
        print(f"  Успешных: {verifications.successful}")
        print(f"  Неуспешных: {verifications.failed}")
        print(f"  Доля успешных: {verifications.success_rate}%")

    def cleanup(self, args):
        """Очистка устаревших данных"""
        if args.dry_run:
            print("Пробный запуск: данные не будут удалены")

        plan = self.cleanup_service.plan(args.expired_days, args.verification_days)
        print("План очистки:")
        print(f"  Просроченных сертификатов: {len(plan.record_ids)} (истекли до {plan.expired_before.isoformat()})")
        print(f"  Записей журнала проверок: {len(plan.verification_ids)} "
              f"(до {plan.verifications_before.strftime('%Y-%m-%d %H:%M')})")

        if plan.total_items == 0:
            print("✓ Нечего удалять")
            return

        if not args.force and not args.dry_run:
            answer = input("Подтвердите очистку, операция необратима [y/N]: ")
            if answer.strip().lower() not in ("y", "yes", "д", "да"):
                print("Операция отменена")
                return

        result = self.cleanup_service.execute(plan, args.batch_size, args.dry_run)
        print(f"✓ Удалено сертификатов: {result.expired_records_deleted}, "
              f"записей журнала: {result.verifications_deleted}")
        for error in result.errors:
            print(f"✗ {error}")

        self.logger.info(f"Очистка выполнена (dry_run={args.dry_run})")

    def issue(self, args):
        """Выдача сертификата"""
        details = self.certificate_service.issue_certificate(IssueCertificateRequest(
            title=args.title,
            user_id=args.user_id,
            holder_name=args.holder,
            certificate_type=args.type,
            issue_date=args.issue_date or self.clock().date(),
            expiry_date=args.expiry_date,
            issuing_authority=args.authority,
            template_id=args.template,
        ))

        print("✓ Сертификат успешно выдан:")
        print(f"  ID: {details.certificate_id}")
        print(f"  Номер: {details.certificate_number}")
        print(f"  Код проверки: {details.verification_code}")
        if details.template_id:
            print(f"  Шаблон: {details.template_id}")

    def templates(self, args):
        """Список активных шаблонов"""
        templates = self.template_service.get_available_templates(args.type)
        if not templates:
            print("  Активных шаблонов не найдено")
            return

        for template in templates:
            default_mark = " (по умолчанию)" if template.is_default else ""
            print(f"  {template.id} [{template.template_type}] {template.template_name}{default_mark}")

    def revoke(self, args):
        """Отзыв сертификата"""
        if not self.certificate_service.revoke_certificate(args.certificate_id, args.reason):
            print(f"✗ Сертификат {args.certificate_id} не найден")
            sys.exit(1)
        print(f"✓ Сертификат {args.certificate_id} отозван")

    def reinstate(self, args):
        """Восстановление сертификата"""
        if not self.certificate_service.reinstate_certificate(args.certificate_id):
            print(f"✗ Сертификат {args.certificate_id} не найден")
            sys.exit(1)
        print(f"✓ Сертификат {args.certificate_id} восстановлен")

    def build_parser(self) -> argparse.ArgumentParser:
        """Описание команд CLI"""
        parser = argparse.ArgumentParser(
            description="Проверка и сопровождение сертификатов об обучении",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Примеры использования:
  %(prog)s init-db
  %(prog)s verify CERT-20240115-000123
  %(prog)s verify-code 3F9A0C12B7DE
  %(prog)s statistics --start 2024-01-01 --end 2024-01-31 --format json
  %(prog)s cleanup --expired-days 365 --verification-days 90 --dry-run
  %(prog)s templates --type safety
            """
        )

        subparsers = parser.add_subparsers(dest='command', help='Доступные команды')

        subparsers.add_parser('init-db', help='Создание таблиц БД')

        verify_parser = subparsers.add_parser('verify', help='Проверка сертификата по номеру')
        verify_parser.add_argument('certificate_number', help='Номер сертификата')

        code_parser = subparsers.add_parser('verify-code', help='Проверка сертификата по коду проверки')
        code_parser.add_argument('verification_code', help='Код проверки')

        batch_parser = subparsers.add_parser('batch-verify', help='Пакетная проверка сертификатов')
        batch_parser.add_argument('certificate_numbers', nargs='*', help='Номера сертификатов')
        batch_parser.add_argument('--file', help='Файл с номерами, по одному в строке')

        details_parser = subparsers.add_parser('details', help='Сведения о сертификате')
        details_parser.add_argument('certificate_number', help='Номер сертификата')

        history_parser = subparsers.add_parser('history', help='История проверок сертификата')
        history_parser.add_argument('certificate_id', help='ID сертификата')

        stats_parser = subparsers.add_parser('statistics', help='Статистика сертификатов и проверок')
        stats_parser.add_argument('--start', type=parse_date, help='Начало периода (YYYY-MM-DD)')
        stats_parser.add_argument('--end', type=parse_date, help='Конец периода (YYYY-MM-DD)')
        stats_parser.add_argument('--format', choices=['table', 'json'], default='table', help='Формат вывода')

        cleanup_parser = subparsers.add_parser('cleanup', help='Очистка устаревших данных')
        cleanup_parser.add_argument('--expired-days', type=int, default=self.settings.cleanup_expired_days,
                                    help='Удалять сертификаты, просроченные более N дней')
        cleanup_parser.add_argument('--verification-days', type=int,
                                    default=self.settings.cleanup_verification_days,
                                    help='Удалять записи журнала старше N дней')
        cleanup_parser.add_argument('--batch-size', type=int, default=self.settings.cleanup_batch_size,
                                    help='Размер пакета')
        cleanup_parser.add_argument('--dry-run', action='store_true', help='Только показать, что будет удалено')
        cleanup_parser.add_argument('--force', action='store_true', help='Не спрашивать подтверждение')

        issue_parser = subparsers.add_parser('issue', help='Выдача сертификата')
        issue_parser.add_argument('--title', required=True, help='Название сертификата')
        issue_parser.add_argument('--holder', help='Имя владельца')
        issue_parser.add_argument('--user-id', help='ID владельца')
        issue_parser.add_argument('--type', default='training', help='Тип сертификата')
        issue_parser.add_argument('--issue-date', type=parse_date, help='Дата выдачи (YYYY-MM-DD)')
        issue_parser.add_argument('--expiry-date', type=parse_date, help='Дата окончания (YYYY-MM-DD)')
        issue_parser.add_argument('--authority', help='Организация, выдавшая сертификат')
        issue_parser.add_argument('--template', help='ID шаблона сертификата')

        templates_parser = subparsers.add_parser('templates', help='Список активных шаблонов')
        templates_parser.add_argument('--type', help='Тип сертификата')

        revoke_parser = subparsers.add_parser('revoke', help='Отзыв сертификата')
        revoke_parser.add_argument('certificate_id', help='ID сертификата')
        revoke_parser.add_argument('--reason', help='Причина отзыва')

        reinstate_parser = subparsers.add_parser('reinstate', help='Восстановление сертификата')
        reinstate_parser.add_argument('certificate_id', help='ID сертификата')

        return parser

    def run(self, argv: Optional[List[str]] = None):
        """Разбор аргументов и выполнение команды"""
        parser = self.build_parser()
        args = parser.parse_args(argv)

        if not args.command:
            parser.print_help()
            return

        handler = getattr(self, args.command.replace('-', '_'))
        try:
            handler(args)
        except ValidationError as e:
            print(f"✗ Ошибка валидации: {e}")
            sys.exit(1)
        except CertificateError as e:
            print(f"✗ Ошибка: {e}")
            self.logger.error(f"Ошибка выполнения команды {args.command}: {e}")
            sys.exit(1)
        except OSError as e:
            print(f"✗ Ошибка чтения файла: {e}")
            self.logger.error(f"Ошибка ввода-вывода в команде {args.command}: {e}")
            sys.exit(1)


def main(argv: Optional[List[str]] = None):
    """Точка входа консольной команды"""
    CertificateCLI().run(argv)


if __name__ == '__main__':
    main()
