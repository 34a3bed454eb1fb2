from shareiscare.cli import main

raise SystemExit(main())
